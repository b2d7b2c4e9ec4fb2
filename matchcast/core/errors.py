class MatchNotFound(RuntimeError):
    def __init__(self, match_id: str):
        super().__init__(f"match not found: match_id={match_id}")
        self.match_id = match_id


class StorageFailure(RuntimeError):
    def __init__(self, match_id: str, reason: str | None = None):
        msg = f"failed to persist prediction: match_id={match_id}"
        if reason:
            msg += f" reason={reason}"
        super().__init__(msg)
        self.match_id = match_id
        self.reason = reason
