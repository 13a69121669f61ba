"""DDL applied by ``PostgresDatabase.ensure_schema``; mirrored by the alembic migration."""

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS branches (
        id BIGSERIAL PRIMARY KEY,
        name VARCHAR(150) NOT NULL,
        code VARCHAR(50) NULL UNIQUE,
        city VARCHAR(150) NULL,
        requires_attachments BOOLEAN NOT NULL DEFAULT FALSE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id BIGSERIAL PRIMARY KEY,
        name VARCHAR(150) NOT NULL,
        email VARCHAR(255) NULL,
        role VARCHAR(20) NOT NULL CHECK (role IN ('operator', 'supervisor', 'admin')),
        branch_id BIGINT NULL REFERENCES branches(id) ON DELETE SET NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tickets (
        id BIGSERIAL PRIMARY KEY,
        ticket_date DATE NOT NULL,
        ticket_time TIME NULL,
        branch_id BIGINT NOT NULL REFERENCES branches(id),
        creator_id BIGINT NOT NULL REFERENCES users(id),
        status VARCHAR(30) NOT NULL CHECK (
            status IN ('open', 'pending', 'pending_attachments', 'authorized', 'rejected', 'closed')
        ),
        subject VARCHAR(150) NOT NULL,
        description TEXT NULL,
        supervisor_remarks TEXT NULL,
        closed_at TIMESTAMPTZ NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT tickets_closed_at_matches_status CHECK ((status = 'closed') = (closed_at IS NOT NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ticket_state_transitions (
        id BIGSERIAL PRIMARY KEY,
        ticket_id BIGINT NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
        from_status VARCHAR(30) NULL,
        to_status VARCHAR(30) NOT NULL,
        actor_id BIGINT NOT NULL REFERENCES users(id),
        comment TEXT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_ticket_state_transitions_ticket
    ON ticket_state_transitions (ticket_id, created_at, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS ticket_attachments (
        id BIGSERIAL PRIMARY KEY,
        ticket_id BIGINT NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
        kind VARCHAR(20) NOT NULL CHECK (kind IN ('image', 'spreadsheet', 'pdf', 'other')),
        original_name VARCHAR(255) NOT NULL,
        storage_path VARCHAR(500) NOT NULL,
        mime_type VARCHAR(255) NULL,
        size_bytes BIGINT NOT NULL,
        is_primary BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_ticket_attachments_primary
    ON ticket_attachments (ticket_id) WHERE is_primary
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id BIGSERIAL PRIMARY KEY,
        ticket_id BIGINT NULL REFERENCES tickets(id) ON DELETE CASCADE,
        origin_user_id BIGINT NULL REFERENCES users(id) ON DELETE SET NULL,
        destination_user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        channel VARCHAR(20) NOT NULL CHECK (channel IN ('internal', 'email', 'other')),
        subject VARCHAR(255) NOT NULL,
        body TEXT NOT NULL,
        delivery_state VARCHAR(20) NOT NULL CHECK (delivery_state IN ('pending', 'sent', 'error')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
        sent_at TIMESTAMPTZ NULL,
        read_at TIMESTAMPTZ NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_notifications_destination
    ON notifications (destination_user_id, read_at)
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_notifications_pending_email
    ON notifications (ticket_id) WHERE channel = 'email' AND delivery_state = 'pending'
    """,
    """
    CREATE TABLE IF NOT EXISTS activity_logs (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NULL,
        module VARCHAR(50) NOT NULL,
        action VARCHAR(50) NOT NULL,
        entity VARCHAR(50) NULL,
        entity_id BIGINT NULL,
        description TEXT NULL,
        ip VARCHAR(64) NULL,
        user_agent TEXT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
)
