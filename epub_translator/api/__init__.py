"""
Web API: Flask blueprints, translation job handlers and job state.
"""
