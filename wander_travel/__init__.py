"""WanderRhodes itinerary planning pipeline."""
