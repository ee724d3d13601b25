"""
Property Minutes - Automated property-review meeting minutes.

Retrieves property mail from Gmail, drafts the minutes with Google Gemini
and publishes them as a formatted Google Docs document filed in Drive.
"""

__version__ = "1.0.0"
