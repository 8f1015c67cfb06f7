"""Legacy spreadsheet importers, keyed by their URL slug"""

from podcast_club.services.imports.carveouts import LegacyCarveOutsImporter
from podcast_club.services.imports.meetings import LegacyMeetingsImporter
from podcast_club.services.imports.pending_podcasts import LegacyPendingPodcastsImporter

IMPORTERS = {
    "legacy-meetings": LegacyMeetingsImporter(),
    "legacy-carveouts": LegacyCarveOutsImporter(),
    "legacy-pending-podcasts": LegacyPendingPodcastsImporter(),
}
