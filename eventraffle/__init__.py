"""Registration desk and raffle-number allocation for a single event."""
