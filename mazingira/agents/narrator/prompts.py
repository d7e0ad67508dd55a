SPEECH_PROMPT = "Say professionally and clearly: {text}"
