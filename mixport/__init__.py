"""Stream Mixpanel raw event exports into CSV, JSON and Kinesis sinks."""
