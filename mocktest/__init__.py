"""Test-taking session engine: answer judge, question states, timer, attempts, reports."""
