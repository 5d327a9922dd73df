"""lingobus-schemas: Pydantic models shared by every lingobus package."""
