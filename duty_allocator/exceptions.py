class StructuralError(Exception):
    """Raised when the exam structure or roster is malformed and allocation cannot start."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class SolverError(Exception):
    """Raised when the CP-SAT model finds no feasible assignment within the time limit."""

    pass


class FileReadingError(Exception):
    """Raised when there is an error reading an input file."""

    pass


class FileContentError(Exception):
    """Raised when the content of an input file is not as expected."""

    pass
