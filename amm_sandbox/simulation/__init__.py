"""Timeline history and stateful pool stores"""
