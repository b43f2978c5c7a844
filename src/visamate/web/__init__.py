"""VisaMate web layer: FastAPI app and viewer sessions."""
