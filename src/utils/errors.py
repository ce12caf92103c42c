"""Custom exception types for consistent error handling."""


class SupabaseUnavailableError(Exception):
    """Raised when the Supabase client cannot be created."""


class SupabaseQueryError(Exception):
    """Raised when a Supabase query fails.

    The message is prefixed with the table that failed so callers can tell
    which fetch aborted the run, e.g. ``"session_attendees: timeout"``.
    """

    def __init__(self, table: str, message: str):
        self.table = table
        self.message = message
        super().__init__(f"{table}: {message}")
