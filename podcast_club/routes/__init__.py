"""API Routes"""

from podcast_club.routes import auth, carveouts, codes, imports, meetings, members, podcasts

__all__ = ["auth", "carveouts", "codes", "imports", "meetings", "members", "podcasts"]
