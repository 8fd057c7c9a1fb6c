"""
Speech pipeline collaborators for the voice tutor.

Request-scoped audio processing: STT -> LLM -> TTS.
No conversation state lives here (conversation_api owns the store).

- base: collaborator contracts and the best-effort synthesis result
- openai_providers: OpenAI Whisper / chat completions / TTS implementations
- instructions: seed system instruction per scenario
"""
