class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(MarketplaceError):
    status_code = 404


class ForbiddenError(MarketplaceError):
    status_code = 403


class InvalidInputError(MarketplaceError):
    status_code = 400


class ConflictError(MarketplaceError):
    # Reported as 400 on the wire, same as the other precondition failures
    status_code = 400
