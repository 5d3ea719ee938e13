import json
import logging

from flask import Flask, Response, jsonify, request

from derja import DerjaAssistant, InvalidRequest
from derja.inbound import QuizRequest, parse_request
from set_env_vars import initialize_env_vars

logger = logging.getLogger(__name__)

initialize_env_vars()

server = Flask(__name__)

try:
    assistant = DerjaAssistant()
except RuntimeError as e:
    logger.warning("Assistant not initialized: %s", e)
    assistant = None


@server.after_request
def add_cors_headers(resp: Response) -> Response:
    resp.headers["access-control-allow-origin"] = "*"
    resp.headers["access-control-allow-methods"] = "POST, OPTIONS"
    resp.headers["access-control-allow-headers"] = "content-type"
    return resp


def _log_shape(body, mode: str) -> None:
    body = body if isinstance(body, dict) else {}
    message = body.get("message")
    history = body.get("history")
    document = body.get("documentText") or body.get("pdfText")
    logger.info(
        "[POST] %s",
        json.dumps(
            {
                "mode": mode,
                "messageLen": len(message) if isinstance(message, str) else 0,
                "historyCount": len(history) if isinstance(history, list) else 0,
                "documentLen": len(document) if isinstance(document, str) else 0,
            }
        ),
    )


def _handle(force_quiz: bool):
    body = request.get_json(silent=True)
    if body is None:
        body = {}

    try:
        parsed = parse_request(body, force_quiz=force_quiz)
    except InvalidRequest as e:
        return jsonify({"error": str(e)}), 400

    _log_shape(body, type(parsed).__name__)

    if assistant is None:
        return jsonify({"error": "AI module not initialized"}), 500

    try:
        result = assistant.handle(parsed)
    except Exception as e:
        logger.exception("Unhandled pipeline error: %s", e)
        return jsonify({"error": "API error"}), 500

    if isinstance(parsed, QuizRequest) and result.degraded_reason:
        logger.info("Quiz served from fallback branch: %s", result.degraded_reason)
    return jsonify(result.to_dict())


@server.route("/api/hello")
def hello():
    return jsonify({"message": "API Working!"})


@server.route("/api/chat", methods=["POST", "OPTIONS"])
def chat():
    if request.method == "OPTIONS":
        return "", 204
    return _handle(force_quiz=False)


@server.route("/api/quiz", methods=["POST", "OPTIONS"])
def quiz():
    if request.method == "OPTIONS":
        return "", 204
    return _handle(force_quiz=True)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    server.run(debug=False, port=3001)
