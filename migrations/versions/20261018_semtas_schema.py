"""Benefit lifecycle schema: requests, concessions, payments, history, schedules, audit and outbox

Revision ID: 20261018_semtas_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018_semtas_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('criado_em', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('atualizado_em', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('solicitacao',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('protocolo', sa.String(length=40), nullable=False),
        sa.Column('beneficiario_nome', sa.Text(), nullable=False),
        sa.Column('beneficiario_cpf', sa.String(length=11), nullable=False),
        sa.Column('prioridade', sa.Integer(), nullable=False),
        sa.Column('determinacao_judicial_flag', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('prioridade BETWEEN 1 AND 5', name=op.f('ck__solicitacao__prioridade_faixa')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__solicitacao')),
        sa.UniqueConstraint('protocolo', name=op.f('uq__solicitacao__protocolo')),
    )
    op.create_index(op.f('ix__solicitacao_id'), 'solicitacao', ['id'])
    op.create_index(op.f('ix__solicitacao_beneficiario_cpf'), 'solicitacao', ['beneficiario_cpf'])

    op.create_table('concessao',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('solicitacao_id', sa.Integer(), nullable=False),
        sa.Column('tipo', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('ordem_prioridade', sa.Integer(), nullable=False),
        sa.Column('determinacao_judicial_flag', sa.Boolean(), nullable=False),
        sa.Column('data_inicio', sa.Date(), nullable=True),
        sa.Column('data_encerramento', sa.Date(), nullable=True),
        sa.Column('motivo_encerramento', sa.Text(), nullable=True),
        sa.Column('motivo_suspensao', sa.Text(), nullable=True),
        sa.Column('data_suspensao', sa.DateTime(), nullable=True),
        sa.Column('data_revisao_suspensao', sa.Date(), nullable=True),
        sa.Column('motivo_bloqueio', sa.Text(), nullable=True),
        sa.Column('data_bloqueio', sa.DateTime(), nullable=True),
        sa.Column('motivo_desbloqueio', sa.Text(), nullable=True),
        sa.Column('data_desbloqueio', sa.DateTime(), nullable=True),
        sa.Column('concessao_anterior_id', sa.Integer(), nullable=True),
        sa.Column('removido_em', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['solicitacao_id'], ['solicitacao.id'],
                                name=op.f('fk__concessao__solicitacao_id__solicitacao')),
        sa.ForeignKeyConstraint(['concessao_anterior_id'], ['concessao.id'],
                                name=op.f('fk__concessao__concessao_anterior_id__concessao')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__concessao')),
        sa.UniqueConstraint('solicitacao_id', name='uq_concessao_solicitacao'),
        sa.UniqueConstraint('concessao_anterior_id', name='uq_concessao_renovacao'),
    )
    op.create_index(op.f('ix__concessao_id'), 'concessao', ['id'])
    op.create_index(op.f('ix__concessao_status'), 'concessao', ['status'])

    op.create_table('pagamento',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('concessao_id', sa.Integer(), nullable=False),
        sa.Column('solicitacao_id', sa.Integer(), nullable=False),
        sa.Column('valor', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('metodo_pagamento', sa.String(length=20), nullable=False),
        sa.Column('numero_parcela', sa.Integer(), nullable=False),
        sa.Column('total_parcelas', sa.Integer(), nullable=False),
        sa.Column('data_vencimento', sa.Date(), nullable=True),
        sa.Column('data_liberacao', sa.DateTime(), nullable=True),
        sa.Column('data_pagamento', sa.DateTime(), nullable=True),
        sa.Column('data_vencido', sa.DateTime(), nullable=True),
        sa.Column('data_regularizacao', sa.DateTime(), nullable=True),
        sa.Column('observacoes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('valor > 0', name=op.f('ck__pagamento__valor_positivo')),
        sa.CheckConstraint('numero_parcela >= 1 AND numero_parcela <= total_parcelas',
                           name=op.f('ck__pagamento__parcela_faixa')),
        sa.ForeignKeyConstraint(['concessao_id'], ['concessao.id'],
                                name=op.f('fk__pagamento__concessao_id__concessao')),
        sa.ForeignKeyConstraint(['solicitacao_id'], ['solicitacao.id'],
                                name=op.f('fk__pagamento__solicitacao_id__solicitacao')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__pagamento')),
        sa.UniqueConstraint('concessao_id', 'numero_parcela', name='uq_pagamento_concessao_parcela'),
    )
    op.create_index(op.f('ix__pagamento_id'), 'pagamento', ['id'])
    op.create_index(op.f('ix__pagamento_concessao_id'), 'pagamento', ['concessao_id'])
    op.create_index(op.f('ix__pagamento_solicitacao_id'), 'pagamento', ['solicitacao_id'])
    op.create_index(op.f('ix__pagamento_status'), 'pagamento', ['status'])

    op.create_table('historico_concessao',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('concessao_id', sa.Integer(), nullable=False),
        sa.Column('status_anterior', sa.String(length=20), nullable=True),
        sa.Column('status_novo', sa.String(length=20), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('motivo', sa.Text(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['concessao_id'], ['concessao.id'],
                                name=op.f('fk__historico_concessao__concessao_id__concessao')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__historico_concessao')),
    )
    op.create_index(op.f('ix__historico_concessao_concessao_id'), 'historico_concessao', ['concessao_id'])

    op.create_table('historico_pagamento',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('pagamento_id', sa.Integer(), nullable=False),
        sa.Column('tipo_evento', sa.String(length=20), nullable=False),
        sa.Column('status_anterior', sa.String(length=20), nullable=True),
        sa.Column('status_novo', sa.String(length=20), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('motivo', sa.Text(), nullable=True),
        sa.Column('dados_contexto', sa.JSON(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['pagamento_id'], ['pagamento.id'],
                                name=op.f('fk__historico_pagamento__pagamento_id__pagamento')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__historico_pagamento')),
    )
    op.create_index(op.f('ix__historico_pagamento_pagamento_id'), 'historico_pagamento', ['pagamento_id'])

    op.create_table('historico_solicitacao',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('solicitacao_id', sa.Integer(), nullable=False),
        sa.Column('status_anterior', sa.String(length=20), nullable=True),
        sa.Column('status_novo', sa.String(length=20), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('motivo', sa.Text(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['solicitacao_id'], ['solicitacao.id'],
                                name=op.f('fk__historico_solicitacao__solicitacao_id__solicitacao')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__historico_solicitacao')),
    )
    op.create_index(op.f('ix__historico_solicitacao_solicitacao_id'), 'historico_solicitacao', ['solicitacao_id'])

    op.create_table('agendamento_notificacao',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('destinatario_id', sa.Integer(), nullable=False),
        sa.Column('canal', sa.String(length=20), nullable=False),
        sa.Column('titulo', sa.String(length=200), nullable=False),
        sa.Column('conteudo', sa.Text(), nullable=True),
        sa.Column('concessao_id', sa.Integer(), nullable=True),
        sa.Column('data_agendamento', sa.DateTime(), nullable=False),
        sa.Column('data_expiracao', sa.DateTime(), nullable=True),
        sa.Column('tentativas', sa.Integer(), nullable=False),
        sa.Column('max_tentativas', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('notificacao_id', sa.String(length=255), nullable=True),
        sa.Column('ultimo_erro', sa.Text(), nullable=True),
        sa.Column('data_envio', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('tentativas >= 0 AND tentativas <= max_tentativas',
                           name=op.f('ck__agendamento_notificacao__tentativas_limite')),
        sa.ForeignKeyConstraint(['concessao_id'], ['concessao.id'],
                                name=op.f('fk__agendamento_notificacao__concessao_id__concessao')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__agendamento_notificacao')),
    )
    op.create_index(op.f('ix__agendamento_notificacao_id'), 'agendamento_notificacao', ['id'])
    op.create_index(op.f('ix__agendamento_notificacao_destinatario_id'), 'agendamento_notificacao', ['destinatario_id'])
    op.create_index(op.f('ix__agendamento_notificacao_concessao_id'), 'agendamento_notificacao', ['concessao_id'])
    op.create_index(op.f('ix__agendamento_notificacao_data_agendamento'), 'agendamento_notificacao', ['data_agendamento'])
    op.create_index(op.f('ix__agendamento_notificacao_status'), 'agendamento_notificacao', ['status'])

    op.create_table('log_auditoria',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('evento_id', sa.String(length=255), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('acao', sa.Text(), nullable=False),
        sa.Column('tabela_afetada', sa.Text(), nullable=False),
        sa.Column('registro_afetado', sa.Integer(), nullable=True),
        sa.Column('dados_anteriores', sa.JSON(), nullable=True),
        sa.Column('dados_novos', sa.JSON(), nullable=True),
        sa.Column('data_hora', sa.DateTime(), nullable=False),
        sa.Column('detalhes_adicionais', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__log_auditoria')),
        sa.UniqueConstraint('evento_id', name=op.f('uq__log_auditoria__evento_id')),
    )

    op.create_table('outbox_evento',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('aggregate_type', sa.String(length=100), nullable=False),
        sa.Column('aggregate_id', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('max_retries', sa.Integer(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('next_retry_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk__outbox_evento')),
    )
    op.create_index(op.f('ix__outbox_evento_event_id'), 'outbox_evento', ['event_id'], unique=True)
    op.create_index(op.f('ix__outbox_evento_event_type'), 'outbox_evento', ['event_type'])
    op.create_index(op.f('ix__outbox_evento_aggregate_id'), 'outbox_evento', ['aggregate_id'])
    op.create_index(op.f('ix__outbox_evento_status'), 'outbox_evento', ['status'])
    op.create_index(op.f('ix__outbox_evento_created_at'), 'outbox_evento', ['created_at'])
    op.create_index(op.f('ix__outbox_evento_next_retry_at'), 'outbox_evento', ['next_retry_at'])


def downgrade() -> None:
    for table in (
        'outbox_evento', 'log_auditoria', 'agendamento_notificacao',
        'historico_solicitacao', 'historico_pagamento', 'historico_concessao',
        'pagamento', 'concessao', 'solicitacao',
    ):
        op.drop_table(table)
