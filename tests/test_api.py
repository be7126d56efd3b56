"""
Integration tests for the HTTP API.
Covers the request -> concession -> installments flow and error mapping.
"""

from datetime import date, datetime, timedelta

import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from semtas.db.models import StatusConcessao, StatusPagamento, StatusSolicitacao

CPF_VALIDO = "52998224725"


@pytest.mark.integration
class TestSolicitacaoAPI:

    async def test_create_request(self, client: AsyncClient):
        response = await client.post("/api/solicitacoes", json={
            "beneficiario_nome": "Maria da Silva",
            "beneficiario_cpf": "529.982.247-25",
            "prioridade": 4,
            "usuario_id": 1,
        })

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "PENDENTE"
        assert data["prioridade"] == 4
        assert data["protocolo"].startswith("SOL")
        assert "beneficiario_cpf" not in data

    async def test_court_order_forces_top_priority(self, client: AsyncClient):
        response = await client.post("/api/solicitacoes", json={
            "beneficiario_nome": "João Souza",
            "beneficiario_cpf": "11144477735",
            "prioridade": 5,
            "determinacao_judicial": True,
        })
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["prioridade"] == 1

    async def test_invalid_cpf(self, client: AsyncClient):
        response = await client.post("/api/solicitacoes", json={
            "beneficiario_nome": "Maria da Silva",
            "beneficiario_cpf": "52998224724",
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["type"] == "validation_error"

    async def test_duplicate_protocol(self, client: AsyncClient):
        body = {"beneficiario_nome": "Maria", "beneficiario_cpf": CPF_VALIDO, "protocolo": "SOL-2026-0001"}
        assert (await client.post("/api/solicitacoes", json=body)).status_code == status.HTTP_201_CREATED
        response = await client.post("/api/solicitacoes", json=body)
        assert response.status_code == status.HTTP_409_CONFLICT

    async def test_priority_out_of_range(self, client: AsyncClient):
        response = await client.post("/api/solicitacoes", json={
            "beneficiario_nome": "Maria", "beneficiario_cpf": CPF_VALIDO, "prioridade": 9,
        })
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_approval_flow_creates_concession(self, client: AsyncClient):
        created = (await client.post("/api/solicitacoes", json={
            "beneficiario_nome": "Maria", "beneficiario_cpf": CPF_VALIDO, "prioridade": 2,
        })).json()

        # cannot approve before analysis
        response = await client.post(f"/api/solicitacoes/{created['id']}/aprovar", json={})
        assert response.status_code == status.HTTP_409_CONFLICT

        response = await client.patch(f"/api/solicitacoes/{created['id']}/status", json={"status": "EM_ANALISE"})
        assert response.status_code == status.HTTP_200_OK

        response = await client.post(f"/api/solicitacoes/{created['id']}/aprovar", json={"usuario_id": 3})
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["solicitacao"]["status"] == "APROVADA"
        assert data["concessao"]["status"] == "APTO"
        assert data["concessao"]["ordem_prioridade"] == 2
        assert data["concessao"]["solicitacao_id"] == created["id"]

        historico = (await client.get(f"/api/solicitacoes/{created['id']}/historico")).json()
        assert [h["status_novo"] for h in historico] == ["PENDENTE", "EM_ANALISE", "APROVADA"]

    async def test_rejection_requires_reason(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        solicitacao = await test_factory.create_solicitacao(db_session, StatusSolicitacao.EM_ANALISE)
        response = await client.patch(f"/api/solicitacoes/{solicitacao.id}/status", json={"status": "INDEFERIDA"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_unknown_request(self, client: AsyncClient):
        response = await client.get("/api/solicitacoes/9999")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["type"] == "not_found"


@pytest.mark.integration
class TestConcessaoAPI:

    async def test_suspend_and_history(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)

        response = await client.post(f"/api/concessoes/{concessao.id}/suspender", json={
            "motivo": "doc pendente", "data_revisao": "2026-11-30", "usuario_id": 2,
        })
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "SUSPENSO"
        assert data["data_revisao_suspensao"] == "2026-11-30"

        historico = (await client.get(f"/api/concessoes/{concessao.id}/historico")).json()
        assert historico[-1]["status_anterior"] == "APTO"
        assert historico[-1]["status_novo"] == "SUSPENSO"
        assert historico[-1]["motivo"] == "doc pendente"

    async def test_missing_reason_is_422(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        response = await client.post(f"/api/concessoes/{concessao.id}/bloquear", json={})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_closed_concession_rejects_transitions(
        self, client: AsyncClient, db_session: AsyncSession, test_factory
    ):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.CESSADO)
        response = await client.post(f"/api/concessoes/{concessao.id}/ativar", json={})
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["type"] == "invalid_transition"

    async def test_renewal(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        anterior = await test_factory.create_concessao(db_session, StatusConcessao.CESSADO)
        nova = await test_factory.create_solicitacao(db_session, StatusSolicitacao.APROVADA)

        assert (await client.get(f"/api/concessoes/{anterior.id}/renovacao")).json()["pode_renovar"] is True

        response = await client.post(f"/api/concessoes/{anterior.id}/prorrogar", json={"nova_solicitacao_id": nova.id})
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["tipo"] == "RENOVACAO"
        assert response.json()["concessao_anterior_id"] == anterior.id

        assert (await client.get(f"/api/concessoes/{anterior.id}/renovacao")).json()["pode_renovar"] is False

    async def test_list_by_status(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        await test_factory.create_concessao(db_session, StatusConcessao.SUSPENSO)

        response = await client.get("/api/concessoes", params={"status": "SUSPENSO"})
        assert response.status_code == status.HTTP_200_OK
        assert [c["status"] for c in response.json()] == ["SUSPENSO"]


@pytest.mark.integration
class TestPagamentoAPI:

    async def test_installment_flow(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO, data_inicio=date.today())

        response = await client.post(f"/api/concessoes/{concessao.id}/pagamentos/gerar", json={
            "valor": "150.50", "total_parcelas": 2, "primeiro_vencimento": "2026-11-05",
        })
        assert response.status_code == status.HTTP_201_CREATED
        parcelas = response.json()
        assert [p["data_vencimento"] for p in parcelas] == ["2026-11-05", "2026-12-05"]

        primeira, segunda = parcelas[0]["id"], parcelas[1]["id"]
        for pagamento_id in (primeira, segunda):
            response = await client.patch(f"/api/pagamentos/{pagamento_id}/status", json={"status": "PROCESSADO"})
            assert response.status_code == status.HTTP_200_OK

        response = await client.patch(f"/api/pagamentos/{segunda}/status", json={"status": "PAGO"})
        assert response.status_code == 422
        assert response.json()["detail"]["type"] == "business_rule_violation"

        for pagamento_id in (primeira, segunda):
            response = await client.patch(f"/api/pagamentos/{pagamento_id}/status", json={"status": "PAGO"})
            assert response.status_code == status.HTTP_200_OK

        resumo = (await client.get(f"/api/concessoes/{concessao.id}/pagamentos")).json()
        assert float(resumo["total_pago"]) == 301.00
        assert (await client.get(f"/api/concessoes/{concessao.id}")).json()["status"] == "CESSADO"

    async def test_invalid_amount(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session)
        response = await client.post(f"/api/concessoes/{concessao.id}/pagamentos", json={"valor": "150.555"})
        assert response.status_code == 422

        for valor in ("1E+30", "123456789012.00"):
            response = await client.post(f"/api/concessoes/{concessao.id}/pagamentos", json={"valor": valor})
            assert response.status_code == 422

    async def test_payment_for_closed_concession(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.CANCELADO)
        response = await client.post(f"/api/concessoes/{concessao.id}/pagamentos", json={"valor": "100.00"})
        assert response.status_code == 422

    async def test_overdue_sweep(self, client: AsyncClient, db_session: AsyncSession, test_factory):
        concessao = await test_factory.create_concessao(db_session, StatusConcessao.ATIVO)
        atrasado = await test_factory.create_pagamento(db_session, concessao, data_vencimento=date(2026, 1, 10))

        response = await client.post("/api/pagamentos/marcar-vencidos", json={"hoje": "2026-02-01"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["vencidos"] == [atrasado.id]

        pagamento = (await client.get(f"/api/pagamentos/{atrasado.id}")).json()
        assert pagamento["status"] == StatusPagamento.VENCIDO.value

        historico = (await client.get(f"/api/pagamentos/{atrasado.id}/historico")).json()
        assert historico[-1]["dados_contexto"] == {"data_vencimento": "2026-01-10"}


@pytest.mark.integration
class TestAgendamentoAPI:

    async def test_schedule_fail_and_send(self, client: AsyncClient):
        agora = datetime.utcnow() - timedelta(minutes=1)
        response = await client.post("/api/agendamentos", json={
            "destinatario_id": 10,
            "titulo": "Pagamento liberado",
            "canal": "SMS",
            "data_agendamento": agora.isoformat(),
        })
        assert response.status_code == status.HTTP_201_CREATED
        agendamento_id = response.json()["id"]

        prontos = (await client.get("/api/agendamentos/prontos")).json()
        assert [a["id"] for a in prontos] == [agendamento_id]

        assert (await client.post(f"/api/agendamentos/{agendamento_id}/processar")).status_code == status.HTTP_200_OK
        response = await client.post(f"/api/agendamentos/{agendamento_id}/falha", json={"motivo": "timeout"})
        assert response.json()["status"] == "AGENDADA"
        assert response.json()["tentativas"] == 1

        response = await client.post(f"/api/agendamentos/{agendamento_id}/cancelar")
        assert response.json()["status"] == "CANCELADA"

        response = await client.post(f"/api/agendamentos/{agendamento_id}/processar")
        assert response.status_code == 422


@pytest.mark.integration
class TestOpsAPI:

    async def test_process_outbox_writes_audit(self, client: AsyncClient):
        await client.post("/api/solicitacoes", json={"beneficiario_nome": "Maria", "beneficiario_cpf": CPF_VALIDO})

        response = await client.post("/api/ops/eventos/processar")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"processed": 1, "failed": 0}

    async def test_request_id_header(self, client: AsyncClient):
        response = await client.get("/api/solicitacoes", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
