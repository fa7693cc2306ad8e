"""FastAPI application exposing the patient and address services over JSON."""
