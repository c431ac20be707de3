"""
Freelance CRM backend.
Clients, projects and communications for independent professionals.
"""

__version__ = "1.0.0"
