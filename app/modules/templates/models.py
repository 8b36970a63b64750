# Supabase table: templates
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key)
- name: text (not null)
- description: text (nullable)
- tech_stack: text (not null) - values: React + Vite, React, Vite, Next.js, HTML
- source_repo_url: text (not null) - GitHub repository that gets forked
- preview_url: text (nullable) - live demo
- preview_image: text (nullable)
- features: text[] (nullable)
- created_at: timestamp (default: now())
"""
