"""
Bot Arena round engine: round scheduling, Swiss matchmaking and Elo rating
for 2v2 bot competitions.
"""
__version__ = "1.0.0"
