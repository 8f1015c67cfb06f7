"""Session cookies and authorization dependencies"""
