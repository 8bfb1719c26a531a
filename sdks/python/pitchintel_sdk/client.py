"""PitchIntel Python SDK Client"""

import httpx
from typing import Optional, List, Dict, Any


class PitchIntelAPIError(Exception):
    """Non-2xx answer from the backend, carrying its JSON error body"""

    def __init__(self, status_code: int, payload: Dict[str, Any]):
        super().__init__(f"HTTP {status_code}: {payload.get('error', 'Unknown error')}")
        self.status_code = status_code
        self.payload = payload


class PitchIntelClient:
    """Python SDK for the PitchIntel backend"""

    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def analyze_slides(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        """
        Analyze slide content

        Returns:
            {content, tokensUsed, cost, cached?}
        """
        return await self._request("POST", "/analyze-slides", json={"messages": messages})

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.8,
        conversation_id: Optional[str] = None,
        system_prompt: Optional[str] = None,
        persona: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a chat turn to a persona

        Args:
            messages: List of messages with 'role' and 'content'
            temperature: Sampling temperature
            conversation_id: Continue an existing conversation
            system_prompt: Persona prompt for a new conversation
            persona: Persona key used when no system prompt is given

        Returns:
            {content, tokensUsed, cost, conversationId, cached?}
        """
        payload: Dict[str, Any] = {
            "messages": messages,
            "temperature": temperature,
        }

        if conversation_id:
            payload["conversationId"] = conversation_id
        if system_prompt:
            payload["systemPrompt"] = system_prompt
        if persona:
            payload["persona"] = persona

        return await self._request("POST", "/chat", json=payload)

    async def get_usage_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/usage-stats")

    async def get_conversation_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/conversation-stats")

    async def delete_conversation(self, conversation_id: str) -> bool:
        data = await self._request("DELETE", f"/conversations/{conversation_id}")
        return bool(data.get("success"))

    async def clear_cache(self) -> bool:
        data = await self._request("POST", "/clear-cache")
        return bool(data.get("success"))

    async def clear_conversations(self) -> bool:
        data = await self._request("POST", "/clear-conversations")
        return bool(data.get("success"))

    async def build_report(self, slides: List[str]) -> Dict[str, Any]:
        """Full deck report: analyses, heatmap, vulnerabilities, questions"""
        return await self._request("POST", "/report", json={"slides": slides})

    async def score_answer(self, question: str, answer: str) -> Optional[Dict[str, Any]]:
        data = await self._request(
            "POST",
            "/score-answer",
            json={"question": question, "answer": answer},
        )
        return data.get("result")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = await self.client.request(method, f"{self.base_url}{path}", **kwargs)
        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": response.text or response.reason_phrase}
            raise PitchIntelAPIError(response.status_code, payload)
        return response.json()

    async def close(self):
        """Close the client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
