"""Database schema DDL for email jobs."""

EMAIL_JOBS_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS email_jobs (
  id             BIGSERIAL PRIMARY KEY,
  type           TEXT NOT NULL,
  payload        TEXT NOT NULL,

  status         TEXT NOT NULL DEFAULT 'pending'
                 CHECK (status IN ('pending', 'processing', 'completed', 'failed')),

  scheduled_for  TIMESTAMPTZ NOT NULL DEFAULT now(),

  attempts       INT NOT NULL DEFAULT 0,
  max_attempts   INT NOT NULL DEFAULT 3,
  error          TEXT,

  created_at     TIMESTAMPTZ NOT NULL DEFAULT now(),
  updated_at     TIMESTAMPTZ NOT NULL DEFAULT now()
);

-- Claim query: pending jobs in scheduled order
CREATE INDEX IF NOT EXISTS idx_email_jobs_pending_scheduled
ON email_jobs (scheduled_for, created_at)
WHERE status = 'pending';

-- Hung job sweep
CREATE INDEX IF NOT EXISTS idx_email_jobs_processing_updated
ON email_jobs (updated_at)
WHERE status = 'processing';

CREATE INDEX IF NOT EXISTS idx_email_jobs_type_status
ON email_jobs (type, status);

-- Payload lookups in SQL; NULL for payloads that are not valid JSON
CREATE OR REPLACE FUNCTION email_jobs_payload_jsonb(payload TEXT)
RETURNS JSONB
LANGUAGE plpgsql IMMUTABLE
AS $$
BEGIN
  RETURN payload::jsonb;
EXCEPTION WHEN others THEN
  RETURN NULL;
END;
$$;
"""
