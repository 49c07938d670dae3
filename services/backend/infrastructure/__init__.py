"""Infrastructure adapters (storage, database, AI, media)"""
