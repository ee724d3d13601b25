"""Google and Gemini service clients."""
