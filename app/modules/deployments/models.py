# Supabase table: deployments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- user_id: uuid (foreign key to auth.users.id, not null)
- template_id: uuid (foreign key to templates.id, not null)
- repo_name: text (not null) - target repository name under the user's account
- status: text (not null, default: 'INIT') - values: INIT, FORKING, CLONING, CONFIGURING, BUILDING, DEPLOYING, SUCCESS, FAILED
- logs: text[] (default: []) - append-only step trail
- user_repo_url: text (nullable) - https://github.com/<user>/<repo_name>
- deployed_url: text (nullable) - set together with SUCCESS
- error_message: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- completed_at: timestamp (nullable) - set on SUCCESS/FAILED

Index: (user_id, repo_name, status) for the one-active-deployment check.
"""
