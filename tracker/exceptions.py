class StudentNotFound(LookupError):
    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"Student with ID {student_id} not found.")


class UpstreamUnavailable(Exception):
    """Codeforces did not answer with usable data (network, status or payload)."""


class StorageFailure(Exception):
    """The database rejected a read or write."""


class DuplicateKey(StorageFailure):
    """A natural-key constraint was hit. Sync treats this as already merged."""


class StudentAlreadyExists(ValueError):
    pass


class ScheduleError(ValueError):
    pass


class HandleNotFound(UpstreamUnavailable):
    """Codeforces answered that the handle does not exist."""
