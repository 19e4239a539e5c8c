"""
Tests for control instruction execution and auditing
"""

import json
from datetime import datetime, timezone
from unittest.mock import Mock

from solar_c2c.core.clock import FixedClock
from solar_c2c.core.domain import (ControlConfiguration, Instruction, InstructionState,
                                   IntegrationConfiguration)
from solar_c2c.core.events import (INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS,
                                   INTEGRATION_CONTROL_INSTRUCTION_TAGS, InMemoryEventAppender)
from solar_c2c.core.instructions import (CONTROL_NOT_FOUND, HANDLER_FAILED, INTEGRATION_NOT_FOUND,
                                         PARAMETER_MISSING, SET_CONTROL_PARAMETER_TOPIC,
                                         TOPIC_NOT_SUPPORTED, InstructionExecutor)
from solar_c2c.core.stores import InMemoryConfigurationStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestInstructionExecutor:
    """Test cases for InstructionExecutor"""

    def setup_method(self):
        self.integration = IntegrationConfiguration(1, 3, "mock")
        self.control = ControlConfiguration(1, 30, 3, control_id="exportLimit",
                                            control_reference="/site-1/inverter-1/exportLimit")
        self.controls = InMemoryConfigurationStore([self.control])
        self.integrations = InMemoryConfigurationStore([self.integration])
        self.appender = InMemoryEventAppender()
        self.handler = Mock(return_value={"value": 5.0})
        self.executor = InstructionExecutor(self.controls, self.integrations, self.appender,
                                            {SET_CONTROL_PARAMETER_TOPIC: self.handler}, FixedClock(NOW))

    def instruction(self, topic=SET_CONTROL_PARAMETER_TOPIC, **params):
        return Instruction(99, topic, params or {"exportLimit": "5"})

    def test_completed(self):
        instruction = self.instruction()

        status = self.executor.execute_instruction((1, 30), instruction)

        assert status.state == InstructionState.COMPLETED
        assert status.instruction_id == 99
        assert status.status_date == NOW
        assert status.result_parameters == {"value": 5.0}
        assert instruction.state == InstructionState.COMPLETED
        self.handler.assert_called_once_with(self.integration, self.control, "5")

        assert len(self.appender.events) == 1
        user_id, event = self.appender.events[0]
        assert user_id == 1
        assert event.tags == INTEGRATION_CONTROL_INSTRUCTION_TAGS
        assert event.data == {
            "configId": 30,
            "integrationId": 3,
            "instructionId": 99,
            "state": "Completed",
            "topic": SET_CONTROL_PARAMETER_TOPIC,
            "instruction": instruction.to_dict(),
        }
        assert json.loads(event.data_json())["instruction"]["state"] == "Completed"

    def test_missing_parameter_declined(self):
        instruction = self.instruction(otherControl="5")

        status = self.executor.execute_instruction((1, 30), instruction)

        assert status.state == InstructionState.DECLINED
        self.handler.assert_not_called()
        assert len(self.appender.events) == 1
        event = self.appender.events[0][1]
        assert event.data["state"] == "Declined"
        assert event.data["errorCode"] == PARAMETER_MISSING

    def test_no_parameters_declined(self):
        instruction = Instruction(99, SET_CONTROL_PARAMETER_TOPIC, None)

        status = self.executor.execute_instruction((1, 30), instruction)

        assert status.state == InstructionState.DECLINED
        self.handler.assert_not_called()
        assert len(self.appender.events) == 1
        event = self.appender.events[0][1]
        assert event.data["errorCode"] == PARAMETER_MISSING
        assert event.data["instruction"]["parameters"] == {}

    def test_unknown_topic_declined(self):
        status = self.executor.execute_instruction((1, 30), self.instruction(topic="Reboot"))

        assert status.state == InstructionState.DECLINED
        self.handler.assert_not_called()
        assert len(self.appender.events) == 1
        event = self.appender.events[0][1]
        assert event.tags == INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS
        assert event.data["errorCode"] == TOPIC_NOT_SUPPORTED
        assert event.data["topic"] == "Reboot"

    def test_control_not_found(self):
        status = self.executor.execute_instruction((1, 31), self.instruction())

        assert status.state == InstructionState.DECLINED
        assert len(self.appender.events) == 1
        assert self.appender.events[0][1].data["errorCode"] == CONTROL_NOT_FOUND

    def test_disabled_control_not_found(self):
        self.control.enabled = False

        status = self.executor.execute_instruction((1, 30), self.instruction())

        assert status.state == InstructionState.DECLINED
        self.handler.assert_not_called()
        assert self.appender.events[0][1].data["errorCode"] == CONTROL_NOT_FOUND

    def test_other_users_control_not_found(self):
        status = self.executor.execute_instruction((2, 30), self.instruction())
        assert status.state == InstructionState.DECLINED
        assert self.appender.events[0][0] == 2

    def test_integration_not_found(self):
        self.integrations.delete((1, 3))

        status = self.executor.execute_instruction((1, 30), self.instruction())

        assert status.state == InstructionState.DECLINED
        assert len(self.appender.events) == 1
        event = self.appender.events[0][1]
        assert event.data["errorCode"] == INTEGRATION_NOT_FOUND
        assert event.data["integrationId"] == 3

    def test_handler_error_declined(self):
        self.handler.side_effect = ValueError("bad value")

        status = self.executor.execute_instruction((1, 30), self.instruction())

        assert status.state == InstructionState.DECLINED
        assert status.result_parameters["message"] == "Error processing instruction: bad value"
        assert len(self.appender.events) == 1
        assert self.appender.events[0][1].data["errorCode"] == HANDLER_FAILED

    def test_appender_failure_keeps_state(self):
        appender = Mock()
        appender.add_event.side_effect = RuntimeError("log unavailable")
        executor = InstructionExecutor(self.controls, self.integrations, appender,
                                       {SET_CONTROL_PARAMETER_TOPIC: self.handler}, FixedClock(NOW))

        status = executor.execute_instruction((1, 30), self.instruction())

        assert status.state == InstructionState.COMPLETED
        appender.add_event.assert_called_once()

    def test_one_event_per_call(self):
        for _ in range(3):
            self.executor.execute_instruction((1, 30), self.instruction())
        assert len(self.appender.events) == 3
