"""Serverless proxy between the repair-shop tracker UI and its Notion databases."""
