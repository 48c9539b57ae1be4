from .test import Test

__all__ = ["Test"]
