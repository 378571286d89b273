from django.db import models


class CommissionMode(models.TextChoices):
    IMMEDIATE          = "IMMEDIATE",          "Immediate"
    AFTER_DEPOSIT      = "AFTER_DEPOSIT",      "After deposit"
    SYSTEM_PLUS_MARKUP = "SYSTEM_PLUS_MARKUP", "System rate + markup"
    MARKUP_ONLY        = "MARKUP_ONLY",        "Markup only"


class TravelClass(models.TextChoices):
    ECONOMY         = "ECONOMY",         "Economy"
    PREMIUM_ECONOMY = "PREMIUM_ECONOMY", "Premium economy"
    BUSINESS        = "BUSINESS",        "Business"
    FIRST           = "FIRST",           "First"
