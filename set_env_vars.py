"""Load .env files into os.environ without overriding what is already exported.

Usage:
  - From Python: `from set_env_vars import initialize_env_vars; initialize_env_vars()`
  - From a shell: `python set_env_vars.py` prints which keys are configured.
"""
from __future__ import annotations

import json
import os
import pathlib

KNOWN_PREFIXES = ("GEMINI_", "GOOGLE_API_KEY", "DERJA_")


def _parse_dotenv(content: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        key = k.strip()
        val = v.strip()
        if not key:
            continue
        if len(val) >= 2 and ((val[0] == val[-1] == '"') or (val[0] == val[-1] == "'")):
            val = val[1:-1]
        out[key] = val
    return out


def _load_dotenv_file(path: pathlib.Path) -> dict[str, str]:
    try:
        content = path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError, PermissionError, UnicodeDecodeError):
        return {}
    return _parse_dotenv(content)


def _repo_root() -> pathlib.Path:
    return pathlib.Path(__file__).resolve().parent


def initialize_env_vars(
    *,
    gemini_api_key: str | None = None,
    dotenv_paths: list[str] | None = None,
    override_existing: bool = False,
) -> dict[str, bool]:
    root = _repo_root()
    candidates = [root / ".env", root / ".env.local"]
    if dotenv_paths:
        candidates = [pathlib.Path(p).expanduser().resolve() for p in dotenv_paths] + candidates

    loaded: dict[str, str] = {}
    # Earlier files win, so load them last.
    for p in reversed(candidates):
        loaded.update(_load_dotenv_file(p))

    def set_env(k: str, v: str | None) -> None:
        if v is None or v == "":
            return
        if not override_existing and os.environ.get(k):
            return
        os.environ[k] = v

    if gemini_api_key:
        set_env("GEMINI_API_KEY", gemini_api_key)

    for k, v in loaded.items():
        if k.startswith(KNOWN_PREFIXES):
            set_env(k, v)

    if not os.environ.get("GEMINI_API_KEY") and os.environ.get("GOOGLE_API_KEY"):
        os.environ["GEMINI_API_KEY"] = os.environ["GOOGLE_API_KEY"]

    return {
        "gemini_api_key_set": bool(os.environ.get("GEMINI_API_KEY")),
        "gemini_model_set": bool(os.environ.get("GEMINI_MODEL")),
        "derja_overrides": any(k.startswith("DERJA_") for k in os.environ),
    }


def _main() -> None:
    status = initialize_env_vars()
    print(json.dumps(status, indent=2))


if __name__ == "__main__":
    _main()
