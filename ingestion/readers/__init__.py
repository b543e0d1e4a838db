"""Item readers: CSV input and the person store"""
