"""engine

Headless game flow: command reducer, timers and the runtime controller.
"""
