"""
StatLab - Statistics course portal with AI-generated exercises.

Packages:
- schemas: Pydantic models for course content, progress and achievements
- classroom: Runtime state (progress, achievements, persistence, navigation)
- ai: Gemini gateway and chat session cache
- viewer: HTML rendering helpers for the Streamlit app
- export: Exercise sheet selection and PDF export
"""

__version__ = "0.1.0"
