"""
Fake OpenRouter server for running NatureID without an API key or network.

Simulates the chat-completions endpoint on port 9000. The reply style is
picked with FAKE_REPLY (json | prose | garbage | error), so the parsing and
fallback paths can be exercised end to end.

Usage:
    python -m natureid.scripts.fake_openrouter_server                      (terminal 1)
    OPENROUTER_API_KEY=dummy \
    OPENROUTER_API_URL=http://127.0.0.1:9000/api/v1/chat/completions \
    uvicorn natureid.services.api:app --port 8000                         (terminal 2)
"""

import json
import os
import time
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

app = FastAPI(title="fake-openrouter-server")

_IDENTIFICATION = {
    "identification": {
        "category": "animal",
        "name": "European Robin",
        "scientificName": "Erithacus rubecula",
        "confidence": 0.88,
        "description": "Small songbird with an orange-red face and breast and olive-brown upperparts.",
        "additionalInfo": {
            "habitat": "Woodland, parks and gardens across Europe",
            "characteristics": "Upright stance, round body, thin bill",
            "notes": "Identified from plumage colour",
        },
    }
}

REPLIES = {
    "json": json.dumps(_IDENTIFICATION, indent=2),
    "prose": "Sure! Here is what I found:\n" + json.dumps(_IDENTIFICATION) + "\nHope that helps.",
    "garbage": "I think this is some kind of plant, but I can't tell which.",
}


def _completion(content: str) -> dict:
    return {
        "id": f"gen-{int(time.time() * 1000)}",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }


@app.post("/api/v1/chat/completions")
async def chat_completions(request: Request):
    body = await request.json()
    mode = os.getenv("FAKE_REPLY", "json")
    parts = body["messages"][0]["content"]
    image_url = next((p["image_url"]["url"] for p in parts if p.get("type") == "image_url"), "")
    print(f"[openrouter] model={body.get('model')} image={image_url[:40]}... ({len(image_url)} chars) mode={mode}")
    time.sleep(0.3)
    if mode == "error":
        return JSONResponse(status_code=429, content={"error": {"message": "Rate limit exceeded", "code": 429}})
    return _completion(REPLIES.get(mode, REPLIES["json"]))


if __name__ == "__main__":
    print("Fake OpenRouter server starting on http://localhost:9000")
    uvicorn.run(app, host="0.0.0.0", port=9000)
