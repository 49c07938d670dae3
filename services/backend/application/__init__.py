"""Application services: editing, auto-save, extraction, rendering"""
