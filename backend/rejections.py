"""
Rejections raised by campaign, character and vote operations.

A rejection means a guard failed before anything was written. The HTTP layer
turns each one into `{"error": message}` with the matching status code.
"""


class CampaignRejection(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CampaignRejection):
    status_code = 404


class NotAllowed(CampaignRejection):
    status_code = 403


class InvalidState(CampaignRejection):
    status_code = 409


class NameTaken(CampaignRejection):
    status_code = 409


class CampaignFull(CampaignRejection):
    status_code = 409


class AlreadyLocked(CampaignRejection):
    status_code = 409


class CharacterLocked(CampaignRejection):
    status_code = 409


class NoLockedCharacters(CampaignRejection):
    status_code = 409


class CampaignAlreadyStarted(CampaignRejection):
    status_code = 409


class TurnAlreadyExists(CampaignRejection):
    status_code = 409


class ResolutionAlreadyExists(CampaignRejection):
    status_code = 409
