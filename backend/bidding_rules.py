# Historical data covers bidding rounds 0..3.
HISTORICAL_ROUNDS = (0, 1, 2, 3)

# Recommendation buckets. Round 0 is never recommended.
BID_ROUNDS = (1, 2, 3)

# Returned by first_oversubscribed_round when no round ever hit rate >= 1.
NEVER_OVERSUBSCRIBED = 4

# A round counts as oversubscribed once demand/supply reaches this ratio.
OVERSUBSCRIBED_RATE = 1.0

# Round 1 takes at most this many entries.
ROUND1_CAPACITY = 4

# Hard cap on Round 1 + Round 2 combined.
ROUND1_AND_2_CAPACITY = 5

# Entries need priority strictly above this to be placed in Round 1.
ROUND1_MIN_PRIORITY = 1

# Display labels for a single historical round.
STATUS_OVERSUBSCRIBED = "Oversubscribed"
STATUS_UNDERSUBSCRIBED = "Undersubscribed"
STATUS_NOT_AVAILABLE = "Full/Not Available"
