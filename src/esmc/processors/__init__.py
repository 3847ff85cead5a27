from .data import DataProcessor, stub_response

__all__ = ["DataProcessor", "stub_response"]
