"""Format adapters: native record <-> canonical point conversions plus Source/Sink classes."""
