"""
Exercise Analysis Engine: rep counting, exercise state and form scoring from pose landmarks.
"""

__version__ = "0.1.0"
