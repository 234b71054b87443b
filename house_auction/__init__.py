"""
House cricket live auction: bidding, settlement and results for a
player auction run between house teams.
"""
