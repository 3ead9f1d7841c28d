import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Application configuration"""

    # Flask settings
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

    # Database settings
    DATABASE_PATH = os.getenv('DATABASE_PATH', 'fairshare.db')

    # Twilio settings for WhatsApp
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID', '')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN', '')
    TWILIO_WHATSAPP_NUMBER = os.getenv('TWILIO_WHATSAPP_NUMBER', 'whatsapp:+14155238886')

    # Group settings
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'EUR')
    CURRENCY_SYMBOLS = {
        'EUR': '€',
        'USD': '$',
        'GBP': '£',
        'CHF': 'CHF ',
    }

    # Application settings
    MAX_PARTICIPANTS = 50
    MIN_AMOUNT = Decimal('0.01')
    MAX_AMOUNT = Decimal('1000000')
    DEFAULT_CATEGORY = 'general'
