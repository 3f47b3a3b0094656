"""Motion source base module"""

from motion.mock_motion import MockMotionSource, TestScripts

__all__ = ["MockMotionSource", "TestScripts"]
