from pitch_coach.clients.groq_client import GroqClient

__all__ = ["GroqClient"]
