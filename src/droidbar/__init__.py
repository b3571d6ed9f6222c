"""droidbar - run Android build, install and logcat commands from the terminal."""

__version__ = "0.1.0"
