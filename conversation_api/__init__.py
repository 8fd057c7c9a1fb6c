"""
Conversation API for the voice tutor.

Owns conversation state and the request pipeline around the speech
collaborators:
- store: in-memory conversations (seed system message + turns)
- orchestrator: /record audio turn handling
- lifecycle: start / list conversations
- server: FastAPI app factory
"""
