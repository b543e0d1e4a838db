"""Item writers: upsert by email, enrich-then-upsert, flat file export"""
