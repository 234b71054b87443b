"""
Configuration constants for the house cricket live auction.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Auction Settings (defaults for the settings singleton)
DEFAULT_BASE_PRICE = 2500
DEFAULT_MIN_INCREMENT = 500
DEFAULT_MAX_PLAYERS_PER_TEAM = 15

# Team defaults
DEFAULT_TEAM_WALLET = 100000
DEFAULT_TEAM_MAX_PLAYERS = 15

# Player defaults
DEFAULT_PLAYER_BASE_PRICE = 1000
MIN_BATCH = 1
MAX_BATCH = 31

# Closed categories
HOUSES = ['Aravali', 'Shivalik', 'Udaigiri', 'Nilgiri']

STRENGTHS = [
    'Batsman',
    'BattingAllrounder',
    'Bowler',
    'Bowling allrounder',
    'All rounder',
]

# Registration sheets use free-text labels for strength
STRENGTH_ALIASES = {
    'Batsman': 'Batsman',
    'Batting All rounder': 'BattingAllrounder',
    'Batting Allrounder': 'BattingAllrounder',
    'BattingAllrounder': 'BattingAllrounder',
    'Bowling': 'Bowler',
    'Bowler': 'Bowler',
    'Bowling All rounder': 'Bowling allrounder',
    'Bowling Allrounder': 'Bowling allrounder',
    'Bowling allrounder': 'Bowling allrounder',
    'All rounder': 'All rounder',
    'All Rounder': 'All rounder',
    'Allrounder': 'All rounder',
}

# Minimum fuzzy score (0-100) to accept an unknown strength label
STRENGTH_MATCH_THRESHOLD = 85

# Column mapping for player import sheets (model field -> sheet column)
IMPORT_COLUMN_MAPPING = {
    'name': 'Name',
    'batch': 'Batch',
    'house': 'House',
    'phone_number': 'Phone Number',
    'total_match_played': 'Matches',
    'total_score': 'Runs',
    'total_wicket': 'Wickets',
    'strength': 'Select your playing strength',
    'base_price': 'Base Price',
    'photo_url': 'Photo URL',
}

# ===== STORAGE =====

DATA_DIR = os.getenv('AUCTION_DATA_DIR', 'data')
CHECKPOINT_FILE = os.path.join(DATA_DIR, 'auction_state.json')
SALE_LOG_FILE = os.path.join(DATA_DIR, 'sales.jsonl')
OUTPUT_DIR = os.path.join(DATA_DIR, 'output')

# ===== API SERVER =====

API_HOST = os.getenv('API_HOST', '127.0.0.1')
API_PORT = int(os.getenv('API_PORT', '4000'))

CORS_ORIGINS = os.getenv(
    'CORS_ORIGINS',
    'http://localhost:5173,http://localhost:3000'
).split(',')

# Shared admin credential checked on every admin route (empty = not configured)
ADMIN_TOKEN = os.getenv('ADMIN_TOKEN', '')
ADMIN_TOKEN_HEADER = 'X-Admin-Token'

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
